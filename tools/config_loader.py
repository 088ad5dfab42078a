import os

import yaml

CONFIG_ENV = "SMS_WATCHER_CONFIG"
DEFAULT_CONFIG = os.path.join("config", "watcher.yaml")


def resolve_config_path(file_path=None):
    """
    配置文件路径解析顺序：
      1. 显式传入的 file_path（相对路径以项目根目录为基准）
      2. 环境变量 SMS_WATCHER_CONFIG
      3. config/watcher.yaml
    """
    file_path = file_path or os.getenv(CONFIG_ENV) or DEFAULT_CONFIG
    if os.path.isabs(file_path):
        return file_path
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(project_root, file_path)


def load_config(section=None, file_path=None, default=None):
    """
    加载 YAML 配置文件，并返回指定部分配置
    :param section: 配置块名称，例如 'watcher'
    :param file_path: 配置文件路径
    :param default: 文件或配置块不存在时的返回值（None 则返回空 dict）
    """
    fallback = {} if default is None else default
    config_file = resolve_config_path(file_path)
    if not os.path.exists(config_file):
        return fallback
    with open(config_file, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ValueError(f"配置文件顶层必须是映射: {config_file}")
    if section:
        return config.get(section, fallback)
    return config
