from .loader import CodecConfig, LayoutConfig, LoggingConfig, RpcConfig, load_config

__all__ = ['CodecConfig', 'LayoutConfig', 'LoggingConfig', 'RpcConfig', 'load_config']
