#!/usr/bin/python
from setuptools import setup, find_namespace_packages

setup(
      name='pyoctopus',
      version='0.1.0',
      description='run commands and copy files on groups of hosts in parallel over ssh',
      author='pyoctopus developers',
      license='MIT',
      # core/ui/config/tests 没有 __init__.py，需要按命名空间包查找
      packages=find_namespace_packages(include=["pyoctopus", "pyoctopus.*"]),
      include_package_data=True,
      zip_safe=False,
      # 安装依赖的其他包
      install_requires = [
        "asyncssh",
        "click>=8.0",
        "PyYAML",
        "rich",
      ],
      extras_require={
        "test": ["pytest"],
      },
    # 设置程序的入口
    # 安装后，命令行执行 `key` 相当于调用 `value`: 中的 :`value` 方法
    entry_points={
        'console_scripts':[
            'pyoctopus = pyoctopus.__main__:main'
        ]
    },
    python_requires='>=3.10'
)
