#!/usr/bin/env python3
"""
Setup script for MyRepBQ package
"""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read requirements
with open(os.path.join(this_directory, 'requirements.txt'), encoding='utf-8') as f:
    requirements = []
    for line in f:
        line = line.strip()
        if line and not line.startswith('#'):
            if line.startswith('pytest'):
                continue  # Skip dev dependencies
            requirements.append(line)

setup(
    name="myrepbq",
    version="1.0.0",
    author="Tumurzakov",
    author_email="tumurzakov@example.com",
    description="MySQL binlog replication into Google BigQuery",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/tumurzakov/myrepbq",
    packages=find_packages(include=["myrepbq", "myrepbq.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-mock>=3.12.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "myrepbq=myrepbq.cli:main",
        ],
    },
    keywords="mysql, replication, binlog, bigquery, data-pipeline",
)
