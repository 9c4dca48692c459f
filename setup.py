from setuptools import setup, find_packages

setup(
    name='mdat-tilemap',
    version='0.1.0',
    author='Virgil',
    author_email='virgil@example.com',
    description='Encode Tiled tilemaps into compact .mdat binary files for game runtimes',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    url='https://github.com/example/mdat-tilemap',
    packages=find_packages(include=['mdat', 'mdat.*']),
    install_requires=[
        'numpy>=1.20.0',
        'opencv-python>=4.5.0',
        'rich>=12.0.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=4.0.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'mdat=mdat.cli:main',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Topic :: Games/Entertainment',
        'Topic :: Software Development :: Libraries',
    ],
    python_requires='>=3.8',
)
