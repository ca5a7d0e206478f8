from setuptools import setup, find_packages

with open("README.md", "r", encoding='utf-8', errors='ignore') as fh:
    long_description = fh.read()


setup(
    name="forestfill",
    version="0.1.0",
    license="MIT",
    test_suite="tests",
    description="Missing Value Imputation using chained Random Forests",
    keywords=['Imputation','Missing Values','Missing','Random Forest','missForest'],
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=[
        'lightgbm >= 4.0.0',
        'numpy',
        'pandas',
        ],
    extras_require={
        "sklearn": [
            'scikit-learn >= 1.4'
        ],
        "Testing": [
            "pytest",
            "scikit-learn",
        ],
    },
    packages=find_packages(exclude=["tests.*", "tests"]),
    classifiers=[
        'Natural Language :: English',
        'Operating System :: MacOS',
        'Operating System :: Microsoft :: Windows',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.9',
)
