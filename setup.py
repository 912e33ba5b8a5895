"""Setup configuration for pipeline-metadata-console package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = (
    readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""
)

setup(
    name="pipeline-metadata-console",
    version="0.1.0",
    description="Cascading configuration dependency and consistency engine for data-pipeline metadata forms",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["metaconsole", "metaconsole.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0",  # Persisted record models
        "python-dotenv>=1.0.0",  # .env loading for catalogs and settings
        "pyyaml>=6.0",
        "tenacity>=8.0.0",  # For retry logic
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "metaconsole-check=metaconsole.forms.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="data-engineering data-pipeline metadata configuration forms",
)
