#!/usr/bin/env python3
"""
Setup script for metrix.
Installs the agent package and the `metrix` console command.
"""

from setuptools import setup, find_packages

setup(
    name="metrix",
    version="0.1.0",
    description="Host metrics agent exporting OTLP over HTTP",
    python_requires=">=3.9",
    packages=find_packages(include=["metrix", "metrix.*"]),
    install_requires=[
        "pydantic>=2.0",
        "httpx>=0.24",
        "PyYAML>=6.0",
        "psutil>=5.9",
        "aiofiles>=23.0",
        "opentelemetry-proto>=1.20",
        "protobuf>=4.21",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "metrix=metrix.__main__:main",
        ],
    },
)
