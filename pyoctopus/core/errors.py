"""异常定义"""


class OctopusError(Exception):
    """所有 pyoctopus 异常的基类"""


class ConfigError(OctopusError):
    """配置文件或命令行参数错误"""


class ResolutionError(OctopusError):
    """主机组解析失败，任何主机上的工作开始之前就会报告"""


class GroupsFileError(ResolutionError):
    """主机组文件无法读取或无法被 bash 加载"""

    def __init__(self, groups_file: str, detail: str = ""):
        self.groups_file = groups_file
        self.detail = detail
        message = f"failed to parse groups from groups file {groups_file}"
        if detail:
            message = f"{message}. {detail}"
        super().__init__(message)


class UnknownGroupError(ResolutionError):
    def __init__(self, group: str, groups_file: str):
        self.group = group
        self.groups_file = groups_file
        super().__init__(f"host group {group} not found in groups file {groups_file}")


class ShellExpansionError(ResolutionError):
    """bash 展开主机组变量失败，output 为合并后的输出"""

    def __init__(self, groups, groups_file: str, cause: str, output: str = ""):
        self.groups = list(groups)
        self.groups_file = groups_file
        self.output = output
        message = f"could not get groups {self.groups} from {groups_file}: {cause}"
        if output:
            message = f"{message}\n{output}"
        super().__init__(message)


class TransportError(OctopusError):
    """远程连接层错误"""


class ConnectError(TransportError):
    def __init__(self, host: str, cause):
        self.host = host
        self.cause = cause
        super().__init__(f"failed to connect to host {host}: {cause}")


class OutputError(OctopusError):
    """携带已捕获输出的错误，引擎会把 stdout/stderr 保留在主机结果中"""

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class RemoteCommandError(OutputError):
    def __init__(
        self,
        host: str,
        command: str,
        exit_status=None,
        stdout: str = "",
        stderr: str = "",
        cause=None,
    ):
        self.host = host
        self.command = command
        self.exit_status = exit_status
        if cause is not None:
            message = f"failed to run command on host {host}: {cause}"
        else:
            message = f"command exited with status {exit_status} on host {host}"
        super().__init__(message, stdout, stderr)


class CopyError(OutputError):
    def __init__(self, num_failed: int, stdout: str = "", stderr: str = ""):
        self.num_failed = num_failed
        super().__init__(f"failed to copy {num_failed} path(s)", stdout, stderr)
