from setuptools import setup


setup(
    name='groundlink',
    version='0.0.1',
    description='Discovers and connects to the ground station data relay, and decodes its telemetry.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['groundlink', 'groundlink.config', 'groundlink.discovery', 'groundlink.support',
              'groundlink.telemetry', 'groundlink.transport'],
    package_data={'groundlink.config': ['network.*.cfg']},
    install_requires=[
        'configobj>=5.0.6',
        'psutil',
    ],
    extras_require={
        'test': ['pytest', 'PyHamcrest>=2.0', 'timeout-decorator'],
    },
    zip_safe=False,
)
