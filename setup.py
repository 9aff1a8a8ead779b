from setuptools import setup, find_packages

setup(
    name='fibcursor',
    version='0.3.0',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    install_requires=[
        'flask>=2.2',
        'flask-cors>=3.0',
        'PyYAML>=6.0',
        'requests>=2.28',
        'psutil>=5.9',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'fibcursor=fibcursor.cli:main',
        ],
    },
    description='Fibonacci cursor API backed by a sparse pair cache',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
        'Intended Audience :: Developers',
        'Framework :: Flask',
    ],
    keywords='fibonacci cache lru api',
    python_requires='>=3.8',
)
