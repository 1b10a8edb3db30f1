#!/usr/bin/env python

import os.path

from setuptools import setup


def read(filename):
    """Read files relative to this file."""
    full_path = os.path.join(os.path.dirname(__file__), filename)
    with open(full_path, "r") as fh:
        return fh.read()


setup(
    name="guestbook",
    version="0.1.0",
    description="A small paginated web guestbook",
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
    license="MIT",
    packages=["guestbook"],
    package_data={"guestbook": ["views/*.tpl", "static/*"]},
    zip_safe=False,
    python_requires=">=3.11",
    install_requires=[
        "bottle>=0.12,<0.14",
        "psycopg2-binary",
    ],
    extras_require={
        "test": ["pytest", "WebTest"],
    },
    entry_points={
        "console_scripts": ["guestbook = guestbook.cli:main"],
    },
    classifiers=[
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Framework :: Bottle",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content :: Message Boards",
    ],
    author="Keith Gaughan",
    author_email="k@stereochro.me",
)
