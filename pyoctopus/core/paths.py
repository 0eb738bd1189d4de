import os


def abs_path(path: str) -> str:
    """展开 ~ 和环境变量，返回绝对路径"""
    expanded = os.path.expandvars(os.path.expanduser(path))
    return os.path.abspath(expanded)
