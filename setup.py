# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""
Latentkit build configuration.

Pure-Python package; the repository root is the ``latentkit`` package.

Build
-----
    pip install -e .                          # editable install
    pip install -e '.[dev]'                   # with test tooling
    python setup.py bdist_wheel               # wheel
"""
import os

from setuptools import setup

# ── Package metadata ──
_readme = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'README.md')
try:
    with open(_readme, 'r', encoding='utf-8') as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = ''

setup(
    name='latentkit',
    version='0.1.0',
    author='Pictofeed, LLC',
    author_email='engineering@pictofeed.io',
    description=(
        'On-device latent diffusion sampling — text-to-image and '
        'image-to-image over ONNX Runtime'
    ),
    long_description=long_description,
    long_description_content_type='text/markdown',
    url='https://github.com/pictofeed/latentkit',
    license='Proprietary',

    package_dir={
        'latentkit': '.',
        'latentkit.backends': 'backends',
        'latentkit.diffusion': 'diffusion',
        'latentkit.utils': 'utils',
    },
    packages=[
        'latentkit',
        'latentkit.backends',
        'latentkit.diffusion',
        'latentkit.utils',
    ],
    entry_points={
        'console_scripts': [
            'latentkit = latentkit.cli:main',
        ],
    },

    python_requires='>=3.10',
    install_requires=[
        'numpy>=1.24',
        'Pillow>=9.0',
        'tqdm>=4.64',
        'onnxruntime>=1.16',
        'tokenizers>=0.15',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0',
        ],
        'test': [
            'pytest>=7.0',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: Other/Proprietary License',
        'Operating System :: MacOS :: MacOS X',
        'Operating System :: POSIX :: Linux',
        'Operating System :: Microsoft :: Windows',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
    ],
    zip_safe=False,
)
