"""Setup script for the document knowledge-graph and reference resolution library."""

from setuptools import setup, find_packages

setup(
    name="docgraph",
    version="1.0.0",
    description="Document knowledge graphs with cross-reference detection and resolution",
    author="Data Process Team",
    python_requires=">=3.9",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "pyyaml>=6.0",
        "tqdm>=4.66.0",
        "numpy>=1.24.0",
    ],
    extras_require={
        "embeddings": ["sentence-transformers>=2.2.0"],
        "dev": ["pytest>=7.0.0", "black>=23.0.0", "isort>=5.12.0"],
    },
)
