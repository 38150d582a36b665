from setuptools import setup

setup(
    name='atmfjstc-zip-directory',
    version='0.1.0',

    author_email='atmfjstc@protonmail.com',

    package_dir={'': 'src'},
    packages=['atmfjstc.lib.zip_directory'],

    install_requires=[
        'termcolor>=1.1',
    ],

    zip_safe=True,

    description="Reader for the central directory and end records of ZIP archives, including Zip64",

    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: System :: Archiving",
        "Typing :: Typed",
    ],
    python_requires='>=3.8',
)
