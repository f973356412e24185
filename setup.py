"""
DocArchive setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="docarchive",
    version="1.0.0",
    description="DocArchive — Document management front end for an archival backend",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "docarchive=docarchive.cli:main",
        ],
    },
    install_requires=[
        "reflex>=0.6.5",
        "pydantic>=2.5",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
