from setuptools import setup

setup(
    name='pyNbBuild',
    version='0.1.0',
    author="J M Franck",
    packages=['pynbbuild', 'pynbbuild.notebook'],
    package_data={'pynbbuild.notebook': ['templates/*.j2']},
    license='BSD',
    long_description=open('README.rst').read(),
    python_requires='>=3.8',
    install_requires=[
        'jinja2',
        'nbformat',
        'pyyaml',
        'pygments',
    ],
    extras_require={'test': ['pytest']},
    entry_points=dict(
        console_scripts=["pynb = pynbbuild.command_line:main",])
)
