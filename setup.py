"""Packaging information for saxenv."""

import sys

import setuptools

from saxenv.constants import VERSION

if sys.version_info[:3] < (3, 7, 0):
    print("saxenv requires Python 3.7 to run.")
    sys.exit(1)

install_requires = [
    "msgpack>=1.0.0",
    "pyzmq>=19.0.0",
    "semver>=2.9.1",
    "boto3>=1.26.0",
]

extras_require = {
    "dev": [
        "flake8>=3.7.9",
        "flake8-docstrings>=1.5.0",
        "flake8-import-order>=0.18.1",
        "black>=19.10b0",
        "pylint>=2.4.4",
        "mypy>=0.770",
        "pytest>=5.4.1",
        "pytest-cov>=2.8.1",
        "moto[s3]>=5.0.0",
    ]
}


def _long_description():
    with open("README.md") as f:
        return f.read()


setuptools.setup(
    name="saxenv",
    version=VERSION,
    description="Local and object store file access, election and RPC for Sax cells.",
    long_description=_long_description(),
    long_description_content_type="text/markdown",
    license="Apache",
    packages=setuptools.find_packages(),
    entry_points={"console_scripts": ["saxenv = saxenv.__main__:main"]},
    install_requires=install_requires,
    extras_require=extras_require,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.7",
        "Intended Audience :: Information Technology",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX :: Linux",
        "Topic :: System :: Distributed Computing",
    ],
    python_requires=">=3.7",
)
