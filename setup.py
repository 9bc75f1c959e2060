from setuptools import setup, find_packages


__version__ = '0.3.0'

with open("README.md", "r") as fh:
    long_desc = fh.read()


setup(
    name='stakewatch',
    version=__version__,
    packages=find_packages(include=['stakewatch', 'stakewatch.*']),
    install_requires=[
        "aiohttp>=3.8",
        "coloredlogs>=15.0.1",
        "motor>=3.1",
        "pymongo>=4.3",
        "prometheus-client>=0.16",
    ],
    extras_require={
        'test': [
            "mongomock-motor>=0.0.21",
        ]
    },
    entry_points={
        'console_scripts': [
            'stakewatch=stakewatch.cli.cmd:main'
        ],
    },
    zip_safe=False,
    description="Validator liveness tracking and nomination ledger",
    long_description=long_desc,
    long_description_content_type="text/markdown",
    classifiers=[
        'Programming Language :: Python :: 3.10',
    ],
    python_requires='>=3.10',
)
