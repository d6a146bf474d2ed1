#!/usr/bin/env python
""" A JSON query compiler for schema-free document stores """

from setuptools import setup, find_packages

setup(
    name='docquery',
    version='1.0.0',

    description=__doc__,
    keywords=['mongodb', 'pymongo', 'aggregation', 'query'],

    packages=find_packages(exclude=('tests',)),
    scripts=[],
    entry_points={},

    python_requires='>= 3.8',
    install_requires=[
        'sqlalchemy >= 1.4',
        'pymongo >= 4.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-cov',
            'flask >= 2.2',
        ],
    },
    include_package_data=True,

    platforms='any',
    classifiers=[
        # https://pypi.python.org/pypi?%3Aaction=list_classifiers
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Natural Language :: English',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Topic :: Database :: Front-Ends',
        'Topic :: Software Development :: Libraries :: Python Modules',
    ],
)
