"""
状态机转换表

订单、调车申请、报价、交付共用同一套转换表结构：
(当前状态, 目标状态) → 操作名 + 允许的角色 + 副作用名称

前端不再自行判断按钮是否可见，而是查询 allowed_actions()。
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from dealerflow.core.exceptions import ForbiddenError, InvalidTransitionError

logger = logging.getLogger(__name__)

UPDATE_STATUS = "update_status"


@dataclass(frozen=True)
class Transition:
    """一条合法的状态转换"""
    source: str
    target: str
    roles: FrozenSet[str]
    # 专用操作名；没有专用操作名的转换通过 update_status 完成
    action: str = UPDATE_STATUS
    # 副作用名称，由具体工作流解释（如 allocate / release / complete_delivery）
    effect: Optional[str] = None


class TransitionTable:
    """状态转换表"""

    def __init__(self, name: str, transitions: Iterable[Transition]):
        self.name = name
        self._by_edge: Dict[Tuple[str, str], Transition] = {}
        for transition in transitions:
            self._by_edge[(transition.source, transition.target)] = transition

    @property
    def transitions(self) -> Tuple[Transition, ...]:
        return tuple(self._by_edge.values())

    @property
    def statuses(self) -> FrozenSet[str]:
        result = set()
        for source, target in self._by_edge:
            result.update((source, target))
        return frozenset(result)

    @property
    def action_names(self) -> FrozenSet[str]:
        return frozenset(t.action for t in self.transitions) | {UPDATE_STATUS}

    def target_for(self, current: str, action: str, status: Optional[str] = None) -> str:
        """
        把操作名解析为目标状态

        update_status 直接使用传入的目标状态（仍需通过 resolve 校验）；
        专用操作名只在其所属的起始状态下有效。
        """
        if action == UPDATE_STATUS:
            if not status:
                raise InvalidTransitionError("update_status 需要指定目标状态", current_status=current)
            return status
        if action not in self.action_names:
            raise InvalidTransitionError(f"{self.name}不支持操作 '{action}'", current_status=current)
        for transition in self.transitions:
            if transition.source == current and transition.action == action:
                return transition.target
        raise InvalidTransitionError(
            f"{self.name}当前状态 '{current}' 不允许执行 '{action}'",
            current_status=current,
            action=action,
        )

    def resolve(self, current: str, target: str, role: str) -> Transition:
        """
        校验一次状态转换

        Raises:
            InvalidTransitionError: 转换不在表中（附带当前状态）
            ForbiddenError: 角色不允许执行该转换
        """
        transition = self._by_edge.get((current, target))
        if transition is None:
            raise InvalidTransitionError(
                f"{self.name}当前状态 '{current}' 不允许变更为 '{target}'",
                current_status=current,
                target_status=target,
            )
        if role not in transition.roles:
            logger.warning(f"⚠️ 越权操作被拒绝: {self.name} {current} → {target}，角色 {role}")
            raise ForbiddenError(
                f"角色 {role} 不能将{self.name}从 '{current}' 变更为 '{target}'",
                current_status=current,
                target_status=target,
            )
        return transition

    def allowed_transitions(self, current: str, role: str) -> List[Transition]:
        return [t for t in self.transitions if t.source == current and role in t.roles]

    def allowed_actions(self, current: str, role: str) -> List[str]:
        """角色在当前状态下可执行的操作名"""
        result: List[str] = []
        for transition in self.allowed_transitions(current, role):
            if transition.action not in result:
                result.append(transition.action)
        return result

    def actionable_statuses(self, role: str) -> FrozenSet[str]:
        """该角色有待办的状态集合（用于待办统计）"""
        return frozenset(t.source for t in self.transitions if role in t.roles)
