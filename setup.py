# -*- coding: utf-8 -*-

"""setup.py"""

import os
import re

from setuptools import setup, find_packages


def read_content(filepath):
    with open(filepath) as fobj:
        return fobj.read()


def get_version():
    content = read_content(os.path.join("src", "registry_explorer", "__init__.py"))
    return re.search(r'__version__ = "(.+?)"', content).group(1)


classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Framework :: Flask",
    "Programming Language :: Python",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: Implementation :: CPython",
]


def get_requirements(filename="requirements.txt"):
    """Read requirements, skipping blank lines and comments."""
    with open(filename) as f:
        reqs = f.read().splitlines()
    return [req for req in reqs if req and not req.startswith("#")]


long_description = read_content("README.rst")

extras_require = {"test": get_requirements("test-requirements.txt")}

setup(
    name="registry-explorer",
    version=get_version(),
    description="Web browser for images stored in a Docker registry",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    classifiers=classifiers,
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["tests"]),
    package_data={
        "registry_explorer": ["templates/*.html", "static/css/*.css", "static/js/*.js"],
    },
    data_files=[],
    install_requires=get_requirements(),
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "registry-explorer = registry_explorer.serve:serve_main",
            "registry-explorer-inspect = registry_explorer.inspect_image:inspect_image_main",
        ],
    },
    include_package_data=True,
    extras_require=extras_require,
)
