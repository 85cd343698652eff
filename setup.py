from setuptools import setup, find_packages

setup(
    name="musesync",
    version="0.3.0",
    packages=find_packages(include=["musesync", "musesync.*"]),
    description="Spread a music library across numbered flash drives and keep each drive in sync.",
    author="Max Carlson",
    author_email="carlsonamax@gmail.com",
    python_requires=">=3.10",
    install_requires=[
        "rich",
        "psutil",
        "tomli-w",
        "tomli; python_version < '3.11'",
    ],
    extras_require={
        "test": ["pytest", "pytest-mock"],
    },
    entry_points={
        "console_scripts": [
            "musesync=musesync.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: MacOS",
        "Operating System :: POSIX",
    ],
)
