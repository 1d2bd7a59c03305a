"""
示例工具：餐厅与菜品查询（内存假数据），以及可选的临时故障注入。
"""

from Tools.fault_injection import FaultInjector
from Tools.restaurant_tools import FakeRestaurantService, get_dish_tool, get_restaurant_tool

__all__ = [
    "FaultInjector",
    "FakeRestaurantService",
    "get_dish_tool",
    "get_restaurant_tool",
]
