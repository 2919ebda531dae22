from setuptools import setup, find_packages

import os
import re

package_name = "slurmtail"
here = os.path.abspath(os.path.dirname(__file__))


def read_version():
    with open(os.path.join(here, package_name, "__init__.py")) as f:
        return re.search(r'^__version__ = "([^"]+)"', f.read(), re.MULTILINE).group(1)


with open(os.path.join(here, "README.md"), "r") as f:
    long_description = f.read()


setup(
    name=package_name,
    version=read_version(),
    license="ASL 2.0",
    keywords="slurm sbatch hpc batch log tail",
    description="Submit Slurm batch jobs and follow their log files",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "typer>=0.9",
        "typing_extensions",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "slurmtail = slurmtail.cli:main",
        ],
    },
    zip_safe=False,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: System :: Distributed Computing",
    ],
)
