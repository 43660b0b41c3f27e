# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Setup configuration for dcap_pytools package.

from setuptools import find_packages, setup

setup(
    name="dcap_pytools",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.25.0",
        "cryptography>=39.0.0",
        "urllib3>=1.26.0",
        "dcap-qvl>=0.3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "dcap-tool=dcap_pytools.cli:main",
        ],
    },
    description="Python tools for Intel SGX/TDX DCAP quote decoding, collateral retrieval and verification",
    author="Isaac Matthews",
    author_email="isaac@hpe.com",
    license="MIT",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
    ],
)
