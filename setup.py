"""
Setup configuration for the bucket-to-printer print relay
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="printrelay",
    version="1.0.0",
    description="Poll a storage bucket for print-ready documents and send them to raw-port network printers",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Print Relay Team",
    packages=find_packages(include=["printrelay", "printrelay.*"]),
    python_requires=">=3.10",
    install_requires=[
        "google-cloud-storage>=3.4.0",
        "google-api-core>=2.11.1,<3.0",
        "google-auth>=2.41.1",
        "python-dotenv>=1.0.0",
        "rich>=13.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3,<9.0",
            "pytest-asyncio>=0.23.0",
            "pytest-cov>=4.1.0,<5.0",
        ],
        "test": [
            "pytest>=7.4.3,<9.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "printrelay=printrelay.cli:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
