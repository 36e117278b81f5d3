import os
from setuptools import setup

def read(fname):
    return open(os.path.join(os.path.dirname(__file__), fname)).read()

setup(
    name = "pipecordic",
    version = "0.0.1",
    author = "Ben Newhouse",
    author_email = "newhouseb@gmail.com",
    description = ("A pipelined CORDIC sine/cosine engine in amaranth with a bit-exact Python model"),
    license = "Apache 2.0",
    keywords = "amaranth cordic sine cosine fixed-point",
    packages=['pipecordic', 'pipecordic.io', 'pipecordic.examples'],
    install_requires=[
        'amaranth>=0.5,<0.6',
        'numpy',
    ],
    extras_require={
        'test': ['pytest'],
    },
    long_description=read('README.md'),
)
