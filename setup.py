# setup.py
from setuptools import setup, find_packages

setup(
    name="chemconv",
    version="0.1.0",
    description="Format-agnostic conversion engine for chemical reaction records.",
    author="Your Name",
    author_email="you@example.com",
    url="https://github.com/your-github-username/chemconv",
    packages=find_packages(exclude=("tests", "tests.*", "examples")),
    python_requires=">=3.10",
    install_requires=[
        "rdkit>=2023.9.1",
        "pandas>=1.5.0",
        "tqdm>=4.64.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Chemistry",
    ],
)
