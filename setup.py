from setuptools import setup, find_packages

setup(
    name="firmscope",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        "firmscope": [
            "targets/data/*.yaml",
            "templates/*.j2",
        ],
    },
    entry_points={
        'console_scripts': [
            'firmscope=firmscope.cli:main',
        ],
    },
    install_requires=[
        "pyelftools>=0.29",
        "cxxfilt>=0.3.0",
        "rust-demangler>=1.0",
        "PyYAML>=5.4",
        "Jinja2>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    python_requires=">=3.9",
    author="firmscope",
    description="Memory layout, RTT and DWARF symbol analysis for embedded firmware ELF files",
)
