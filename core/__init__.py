"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有狀態轉換
- StateStore：比賽與事件紀錄的唯一持有者
- LifecycleEngine：比賽生命週期與隨機事件計時器
- EventHub：事件推送與歷史重播
- Locks：並發控制工具
"""
