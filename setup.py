"""
Setup script for Parley - end-to-end encryption for direct and channel messages.

This package provides:
- Ed25519-signed X25519 key-exchange offers
- XChaCha20-Poly1305 direct and channel message envelopes
- Shared channel keys distributed over authenticated direct channels
- Encrypted keystore (platform protection or Argon2id password)
- Text-in/result-out host boundary and a command-line front end
"""

from setuptools import setup, find_packages
import os

this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='parley-e2e',
    version='1.0.0',
    description='End-to-end encryption engine for direct and channel messages',
    long_description=long_description,
    long_description_content_type='text/markdown',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    classifiers=[
        'Development Status :: 5 - Production/Stable',
        'Intended Audience :: Developers',
        'Topic :: Communications :: Chat',
        'Topic :: Security :: Cryptography',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
        'Environment :: Console',
    ],
    python_requires='>=3.11',
    install_requires=[
        'cryptography>=42.0.4',
        'argon2-cffi>=23.1.0',
        'PyNaCl>=1.5.0',
        'aiofiles>=23.2.1',
        'rich>=13.7.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'parley=parley.main:main',
        ],
    },
)
