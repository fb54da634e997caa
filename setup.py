"""
Setup script for pdfassemblex.

This script configures the package for installation via pip.
Supports both development and production installations.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README for long description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="pdfassemblex",
    version="1.0.0",
    description="Assemble one PDF from an ordered, rotated selection of pages from several PDFs",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="pdfassemblex Contributors",
    author_email="",
    packages=find_packages(include=["pdfassemblex", "pdfassemblex.*"]),
    install_requires=[
        "pypdf>=3.0.0",
        "pymupdf>=1.23.0",
        "Pillow>=9.1.0",
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pdfassemblex=pdfassemblex.cli:cli",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: End Users/Desktop",
        "Topic :: Office/Business",
        "Topic :: Utilities",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Operating System :: OS Independent",
        "Environment :: Console",
    ],
    keywords="pdf merge assemble reorder rotate pages thumbnails",
    license="MIT",
    include_package_data=True,
    zip_safe=False,
)
