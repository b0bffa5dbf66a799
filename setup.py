#!/usr/bin/env python3

from setuptools import find_packages, setup  # type: ignore

INSTALL_REQUIRES = [
    'click>=8.0'    , # for the CLI, printing colors
    'colorlog'      , # coloured logs, see dlengine.logging
    'psutil'        , # physical core detection, hyperthreads aren't counted
    'more-itertools', # it's just too useful and very common anyway
]


def main() -> None:
    pkg = 'dlengine'
    setup(
        name='dlengine',
        version='0.1.0',

        zip_safe=False,

        package_dir={'': 'src'},
        packages=find_packages('src'),
        package_data={
            pkg: [
                # required session properties, see dlengine.session.read_conf
                'spark-dlengine.conf',
                # for mypy
                'py.typed',
            ],
        },

        description='Engine topology and thread pool configuration for distributed numeric workloads',

        python_requires='>=3.9',
        install_requires=INSTALL_REQUIRES,
        extras_require={
            'testing': [
                'pytest',
                'mypy',
            ],
            'spark': [
                # only needed to verify a live session, see dlengine.session.check_spark_context
                'pyspark',
            ],
        },
        entry_points={'console_scripts': ['dlengine=dlengine.__main__:main']},
    )


if __name__ == '__main__':
    main()
