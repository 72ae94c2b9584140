from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="unitgraph",
    version="0.1.0",
    author="Peter Cotton",
    author_email="",
    description="Unit conversion graph construction and spec-entry deduplication",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["unitgraph", "unitgraph.*"]),
    include_package_data=True,
    package_data={
        'unitgraph': ['pipeline_config.yaml'],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "pandas>=1.3.0",
        "rapidfuzz>=2.0.0",
        "pyarrow>=10.0.0",
        "pyyaml>=6.0",
        "tqdm>=4.60.0",
        "anthropic>=0.30.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "dev": ["pytest>=7.0.0"],
    },
)
