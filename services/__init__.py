"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- EventService：隨機抽出比賽事件與事件間隔
- NamingService：Match ID 生成邏輯
"""
