from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="grove-trees",
    version="0.3.0",
    author="Seppo Pakonen",
    author_email="seppo.pakonen@gmail.com",
    description="Grove - hierarchical source tree registry with dependency links",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "toml>=0.10.0",
        "filelock>=3.12",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
)
