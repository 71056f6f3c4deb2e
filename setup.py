"""
Setup script for the CUR Migration Assessment package.
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

# Read requirements
requirements = (this_directory / "requirements.txt").read_text().strip().split('\n')

setup(
    name="cur-migration-assessment",
    version="1.0.0",
    author="Cloud Migration Assessment Team",
    author_email="migration-assessment@example.com",
    description="Streaming AWS Cost and Usage Report ingestion and migration assessment aggregation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["cur_migration_assessment", "cur_migration_assessment.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Systems Administration",
        "Topic :: Office/Business :: Financial",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    entry_points={
        "console_scripts": [
            "cur-migration-assessment=cur_migration_assessment.cli:main_sync",
        ],
    },
    include_package_data=True,
    package_data={
        "cur_migration_assessment": ["py.typed"],
    },
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "flake8>=4.0.0",
            "mypy>=0.991",
        ],
    },
    keywords="aws cur billing cost migration gcp assessment finops",
)
