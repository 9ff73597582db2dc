from setuptools import setup, find_packages

setup(
    name="safebash",
    version="0.1.0",
    description="Static safety gate that blocks file-modifying shell commands proposed by a coding agent",
    author="phisanti",
    author_email="tisalon@outlook.com",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*", "scripts"]),
    install_requires=[
        "typer>=0.12",
        "rich>=13.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "safebash=safebash.main:safebash",
        ],
    },
    python_requires=">=3.10",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
