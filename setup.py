from setuptools import setup, find_packages

setup(
    name='osfetch',
    version='0.1.0',
    description='Resolve and download OS images for cloud managed devices',
    package_dir={'': 'src'},
    packages=find_packages('src'),
    python_requires='>=3.10',
    install_requires=[
        'requests',
        'pick>=2.3',
        'PyYAML',
        'urllib3',
        'platformdirs',
        'rich',
        'aiohttp',
        'aiofiles',
        'semantic_version',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-mock',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'osfetch=osfetch.cli:main',
        ],
    },
)
