from setuptools import setup

setup(
    name='csssprites',
    version='0.1',
    license='BSD',
    description=('csssprites rewrites a stylesheet so its background images '
                 'are served from generated spritesheets.'),
    long_description=('csssprites scans a stylesheet for background images, '
                      'packs them into one PNG spritesheet per group (and '
                      'one SVG spritesheet for vector images) and rewrites '
                      'every rule with the background-image, '
                      'background-position and, for retina images, '
                      'background-size needed to use the spritesheet.'),
    packages=['csssprites'],
    platforms='any',
    python_requires='>=3.9',
    install_requires=[
        'Pillow>=9.1',
        'tinycss2>=1.0',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['csssprites = csssprites.cli:main'],
    },
    zip_safe=False,
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Web Environment',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Utilities'
    ],
)
