"""
餐厅与菜品查询工具

提供两个示例工具（query_restaurants / query_dishes），后端为内存中的假数据服务。
工具返回 JSON 文本，会作为 ToolMessage 的 content 交给模型，
因此字段名与取值都使用有明确含义的字符串，不使用数字枚举。
"""

import json
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from config.settings import get_settings
from config.tool_config import ToolConfig, get_tool_config
from core.safe_tool import JsonArgsTool, SafeTool
from core.tool_errors import ToolError
from Tools.fault_injection import FaultInjector

logger = logging.getLogger(__name__)

DEFAULT_RESTAURANT_TOPN = 3
DEFAULT_DISH_TOPN = 5


class Restaurant(BaseModel):
    id: str
    name: str
    place: str
    desc: str
    score: int


class Dish(BaseModel):
    name: str
    desc: str
    price: int
    score: int


class QueryRestaurantsParam(BaseModel):
    location: str = Field(description="The location of the restaurant")
    topn: int = Field(default=DEFAULT_RESTAURANT_TOPN, description="top n restaurant in some location sorted by score")


class QueryDishesParam(BaseModel):
    restaurant_id: str = Field(description="The id of one restaurant")
    topn: int = Field(default=DEFAULT_DISH_TOPN, description="top n dishes in one restaurant sorted by score")


_RESTAURANTS: List[Restaurant] = [
    Restaurant(id="1001", name="川味小馆", place="北京朝阳区", desc="正宗川菜，麻辣鲜香", score=4),
    Restaurant(id="1002", name="湘当好", place="北京海淀区", desc="湘菜馆，香辣下饭", score=5),
    Restaurant(id="1003", name="京味斋", place="北京东城区", desc="老北京菜与烤鸭", score=3),
    Restaurant(id="2001", name="本帮菜馆", place="上海黄浦区", desc="浓油赤酱的本帮菜", score=4),
]

_DISHES: Dict[str, List[Dish]] = {
    "1001": [
        Dish(name="水煮鱼", desc="麻辣鲜嫩", price=88, score=5),
        Dish(name="宫保鸡丁", desc="微辣，带花生", price=42, score=4),
        Dish(name="麻婆豆腐", desc="麻辣烫", price=28, score=4),
    ],
    "1002": [
        Dish(name="剁椒鱼头", desc="鲜辣", price=98, score=5),
        Dish(name="小炒黄牛肉", desc="香辣", price=68, score=5),
        Dish(name="农家小炒肉", desc="辣味适中", price=48, score=3),
    ],
    "1003": [
        Dish(name="北京烤鸭", desc="皮脆肉嫩", price=168, score=5),
        Dish(name="炸酱面", desc="不辣", price=25, score=3),
    ],
    "2001": [
        Dish(name="红烧肉", desc="甜咸口，不辣", price=58, score=5),
        Dish(name="油爆虾", desc="甜口", price=78, score=4),
    ],
}


class FakeRestaurantService:
    """内存中的假数据服务"""

    def __init__(
        self,
        restaurants: Optional[List[Restaurant]] = None,
        dishes: Optional[Dict[str, List[Dish]]] = None,
    ):
        self._restaurants = restaurants if restaurants is not None else _RESTAURANTS
        self._dishes = dishes if dishes is not None else _DISHES

    async def query_restaurants(self, location: str, topn: int) -> List[Restaurant]:
        matched = [r for r in self._restaurants if location in r.place or r.place in location]
        return sorted(matched, key=lambda r: r.score, reverse=True)[:topn]

    async def query_dishes(self, restaurant_id: str, topn: int) -> List[Dish]:
        if restaurant_id not in self._dishes:
            raise ToolError(f"restaurant {restaurant_id} not found", code="not_found")
        return sorted(self._dishes[restaurant_id], key=lambda d: d.score, reverse=True)[:topn]


class QueryRestaurantsTool(JsonArgsTool):
    name = "query_restaurants"
    description = "Query restaurants"
    args_model = QueryRestaurantsParam

    def __init__(self, service: FakeRestaurantService, fault_injector: Optional[FaultInjector] = None):
        self.service = service
        self.fault_injector = fault_injector

    async def ainvoke(self, arguments_json: str) -> str:
        params = self.parse_arguments(arguments_json)
        topn = params.topn if params.topn > 0 else DEFAULT_RESTAURANT_TOPN

        if self.fault_injector is not None:
            self.fault_injector.maybe_fail("restaurant")

        rests = await self.service.query_restaurants(params.location, topn)
        return json.dumps([r.model_dump() for r in rests], ensure_ascii=False)


class QueryDishesTool(JsonArgsTool):
    name = "query_dishes"
    description = "查询一家餐厅有哪些菜品"
    args_model = QueryDishesParam

    def __init__(self, service: FakeRestaurantService):
        self.service = service

    async def ainvoke(self, arguments_json: str) -> str:
        params = self.parse_arguments(arguments_json)
        topn = params.topn if params.topn > 0 else DEFAULT_DISH_TOPN

        dishes = await self.service.query_dishes(params.restaurant_id, topn)
        return json.dumps([d.model_dump() for d in dishes], ensure_ascii=False)


_default_service: Optional[FakeRestaurantService] = None


def _get_default_service() -> FakeRestaurantService:
    global _default_service
    if _default_service is None:
        _default_service = FakeRestaurantService()
    return _default_service


def build_fault_injector(tool_name: str, tool_config: Optional[ToolConfig] = None) -> Optional[FaultInjector]:
    """
    按配置创建故障注入器

    优先级：环境变量 FAULT_PROBABILITY（Settings）> tool.yaml；概率为 0 时返回 None。
    """
    settings = get_settings()
    if settings.fault_injection_enabled:
        probability = settings.fault_probability
    else:
        probability = (tool_config or get_tool_config()).get_fault_probability(tool_name)
    if probability <= 0:
        return None
    logger.info(f"工具 `{tool_name}` 启用故障注入: probability={probability}, seed={settings.fault_seed}")
    return FaultInjector(probability=probability, seed=settings.fault_seed)


def get_restaurant_tool(
    service: Optional[FakeRestaurantService] = None,
    fault_injector: Optional[FaultInjector] = None,
    tool_config: Optional[ToolConfig] = None,
) -> SafeTool:
    """获取 SafeTool 封装的 query_restaurants 工具"""
    config = tool_config or get_tool_config()
    injector = fault_injector or build_fault_injector(QueryRestaurantsTool.name, config)
    return SafeTool(
        QueryRestaurantsTool(service or _get_default_service(), fault_injector=injector),
        timeout=config.get_tool_timeout(QueryRestaurantsTool.name),
    )


def get_dish_tool(
    service: Optional[FakeRestaurantService] = None,
    tool_config: Optional[ToolConfig] = None,
) -> SafeTool:
    """获取 SafeTool 封装的 query_dishes 工具"""
    config = tool_config or get_tool_config()
    return SafeTool(
        QueryDishesTool(service or _get_default_service()),
        timeout=config.get_tool_timeout(QueryDishesTool.name),
    )


__all__ = [
    "Restaurant",
    "Dish",
    "FakeRestaurantService",
    "QueryRestaurantsTool",
    "QueryDishesTool",
    "build_fault_injector",
    "get_restaurant_tool",
    "get_dish_tool",
]
