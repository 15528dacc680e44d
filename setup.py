from setuptools import setup, find_packages

setup(
    name="jobtaxonomy",
    version="0.1.0",
    packages=find_packages(where="src") + ["storage"],
    package_dir={"": "src", "storage": "storage"},
    package_data={
        "jobtaxonomy.taxonomy": ["seed_taxonomy.yaml"],
    },
    install_requires=[
        "pyyaml>=6.0",
        "requests>=2.31.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "jobtaxonomy=jobtaxonomy.cli:main",
        ],
    },
)
