# ABOUTME: Package setup configuration
# ABOUTME: Enables pip installation of the PLY -> glTF splat converter

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / 'README.md'
long_description = readme_file.read_text() if readme_file.exists() else ''

setup(
    name='splat-gltf-converter',
    version='0.1.0',
    description='Gaussian splat PLY to glTF/GLB converter with cleaning and meshopt compression',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    py_modules=[
        'gaussian_splat',
        'ply_io',
        'splat_cleaner',
        'gltf_exporter',
        'vertex_codec',
        'authorization',
        'splat_errors',
    ],
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.24.0',
        'scipy>=1.11.0',
        'pygltflib>=1.16.0',
        'meshoptimizer',
    ],
    extras_require={
        'dev': [
            'pytest>=7.4.0',
            'pytest-cov>=4.1.0',
            'trimesh>=3.23.0',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'Topic :: Multimedia :: Graphics :: 3D Modeling',
        'Topic :: Scientific/Engineering :: Visualization',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
    keywords='gaussian-splatting 3d-graphics gltf glb meshopt',
)
