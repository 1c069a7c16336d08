"""
角色定义

- DealerStaff: 经销商销售人员（开票、交付、收款录入）
- DealerManager: 经销商经理（审批订单、确认收款、申请调车）
- EVMStaff: 厂商分配人员（分配库存、驳回订单、审批调车申请）
- Admin: 系统管理员（拥有厂商侧操作权限）
"""

from typing import FrozenSet

DEALER_STAFF = "DealerStaff"
DEALER_MANAGER = "DealerManager"
EVM_STAFF = "EVMStaff"
ADMIN = "Admin"

ROLES = {
    DEALER_STAFF: "经销商销售",
    DEALER_MANAGER: "经销商经理",
    EVM_STAFF: "厂商分配专员",
    ADMIN: "系统管理员",
}

DEALER_ROLES: FrozenSet[str] = frozenset({DEALER_STAFF, DEALER_MANAGER})
EVM_ROLES: FrozenSet[str] = frozenset({EVM_STAFF, ADMIN})


def is_dealer_role(role: str) -> bool:
    """是否是经销商侧角色（数据按经销商隔离）"""
    return role in DEALER_ROLES
