"""
Static prompts served by the extended variant of the server.
"""
from typing import Any, Dict, List

DEFAULT_MILESTONE = "3.11.0"

GITLAB_REPORT_PROMPT = {
    "name": "gitlab-report",
    "description": "GitLabのマイルストーンに関するレポートを生成します。",
    "arguments": [
        {
            "name": "milestone",
            "description": "マイルストーン",
            "required": True,
        }
    ],
}

GITLAB_REPORT_TEMPLATE = """
# GitLabの開発状況の可視化

## 目的
BigQueryからGitLabのデータからマイルストーン"{milestone}"についてチームごとに振り返りのデータを作成します。
上記をそれぞれグラフにまとめ、日本人の向けたレポートを作成します。
グラフはプレゼンでプロが利用するようなモダンなデザインを目指します。
最後にこのデータからプロジェクトマネージメントの観点から所感と、仮説を提案してください。

## 抽出対象
 - コミット数の合計
   - merge_request_commitsの数を集計
 - マージリクエストの合計数
 - マージリクエストの合計数のstate別の合計数
 - マージされたマージリクエストのリードタイムの平均
 - 現在オープンされているMRを作成日が最も古い順から最大5個を抽出
   - weburi必須

## グラフ化
 - コミット数の合計
   - チーム別に棒グラフ
 - マージリクエストの合計数
   - チーム別に棒グラフ
 - マージリクエストの合計数のstate別の合計数
   - チーム別にstateで分類した積み上げ棒グラフ
 - マージされたマージリクエストのリードタイムの平均
   - チーム別に棒グラフ
 - 現在オープンされているMRを作成日が最も古い順から最大5個を抽出
   - table形式
   - weburiを記載
"""

PROMPTS: List[Dict[str, Any]] = [GITLAB_REPORT_PROMPT]


def render_gitlab_report(milestone: str) -> str:
    return GITLAB_REPORT_TEMPLATE.format(milestone=milestone)
