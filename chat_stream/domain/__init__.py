"""领域层模型与协议。

包含：
- models: Message / SearchResult / ChatRequest 等统一数据模型。
- events: 流式事件的封闭变体集合。
- conversation: 会话状态机 Conversation。
- exceptions: 业务异常类型定义。
"""
