"""
adjud setup: adjud is a library for reconciling several annotations of
the same text into a single gold standard
"""

from setuptools import setup, find_packages
import glob
import os

REQS = [
    'funcparserlib >= 1.0',
    'frozendict',
    'tabulate',
    'pandas >= 1.0',
]


setup(name='adjud',
      version='0.3',
      packages=find_packages(),
      scripts=[f for f in glob.glob('scripts/*') if not os.path.isdir(f)],
      install_requires=REQS,
      extras_require={'test': ['pytest']})
