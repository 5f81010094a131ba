#!/usr/bin/env python3
"""
KST Node - identity and network state core for a KST ledger node

Install with: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="kstnode",
    version="1.0.0",
    author="KST Node Team",
    description="Address derivation, name validation and work state for a KST ledger node",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Security :: Cryptography",
    ],
    python_requires=">=3.8",
    install_requires=[
        "redis>=4.5.0",
    ],
    entry_points={
        "console_scripts": [
            "kstnode=kstnode.cli:main",
            "kstnode-node=kstnode.node:main",
        ],
    },
)
