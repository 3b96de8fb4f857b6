"""Price Shield - 价格陷阱检测与价格追踪管线"""

__version__ = "0.2.0"
