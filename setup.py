from setuptools import setup, find_packages

setup(
    name='repolib',
    version='0.1.0',
    description='Client library for RDF metadata repositories exposed over HTTP',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=["repolib_mock_client_test"]),
    include_package_data=True,
    entry_points={
        'console_scripts': [
            'repolib-repl=repolib.cmd.repo_repl:main',
        ],
    },

    license='Apache License 2.0',
    install_requires=[
        "rdflib>=7.0.0",
        "requests>=2.31",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "python-dotenv",
        "prompt_toolkit>=3.0",
        "tabulate",
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },

    classifiers=[
        "Programming Language :: Python :: 3.11",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.10',
)
