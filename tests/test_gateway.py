"""EventGateway 測試模組。

涵蓋：
- Rule: 建立 Event 時應依固定順序驗證必填欄位
- Rule: 更新只套用存在且非空的欄位
- Rule: 刪除為永久刪除
- Rule: 列表支援 event_start_time 子字串篩選
- Rule: 非 Event 紀錄的 id 應視為不存在
"""

from __future__ import annotations

from typing import Any

import allure
import pytest

from event_api.exceptions import MissingIdError, NotFoundError, StoreError, ValidationError
from event_api.gateway import REQUIRED_FIELDS, EventGateway
from event_api.store import MemoryRecordStore, RecordStore


def _make_payload(**overrides: Any) -> dict[str, Any]:
    """建立完整的 Event 建立請求本體。"""
    payload: dict[str, Any] = {
        'title': 'PyCon Taiwan',
        'description': '年度 Python 研討會',
        'event_start_time': '2024-05-10 09:00',
        'event_end_time': '2024-05-10 18:00',
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Rule: 建立 Event 時應依固定順序驗證必填欄位
# =============================================================================


@allure.feature('Event CRUD')
@allure.story('建立 Event 時應依固定順序驗證必填欄位')
class TestValidation:
    """測試必填欄位驗證。"""

    @allure.title('缺少任一必填欄位時回報該欄位')
    @pytest.mark.parametrize('missing', REQUIRED_FIELDS)
    async def test_single_missing_field(self, gateway: EventGateway, missing: str) -> None:
        """Scenario: 缺少單一必填欄位

        Given 一個缺少某必填欄位的請求本體
        When 建立 Event
        Then 應拋出 ValidationError 並指出該欄位
        """
        payload = _make_payload()
        del payload[missing]

        with pytest.raises(ValidationError) as exc_info:
            await gateway.create(payload)

        assert exc_info.value.field == missing
        assert exc_info.value.message == f'Missing field: {missing}'
        assert exc_info.value.status == 400
        assert exc_info.value.code == 'missing_field'

    @allure.title('多個欄位缺失時只回報順序上第一個')
    @pytest.mark.parametrize(
        ('missing', 'expected'),
        [
            (('description', 'title'), 'title'),
            (('description', 'event_end_time'), 'event_end_time'),
            (('event_end_time', 'event_start_time'), 'event_start_time'),
            (REQUIRED_FIELDS, 'title'),
        ],
    )
    async def test_first_missing_field_wins(
        self,
        gateway: EventGateway,
        missing: tuple[str, ...],
        expected: str,
    ) -> None:
        """Scenario: 多個欄位缺失時，依 title、start、end、description 順序回報第一個。"""
        payload = _make_payload()
        for field in missing:
            del payload[field]

        with pytest.raises(ValidationError) as exc_info:
            await gateway.create(payload)

        assert exc_info.value.field == expected

    @allure.title('空字串、空白與 None 視為缺失')
    @pytest.mark.parametrize('value', ['', '   ', None, [], '<b></b>', '0'])
    async def test_empty_values_are_missing(self, gateway: EventGateway, value: Any) -> None:
        """Scenario: 欄位存在但為空值時視為缺失。"""
        with pytest.raises(ValidationError) as exc_info:
            await gateway.create(_make_payload(event_end_time=value))

        assert exc_info.value.field == 'event_end_time'

    @allure.title('驗證失敗時不寫入任何紀錄')
    async def test_validation_failure_writes_nothing(self, gateway: EventGateway) -> None:
        """Scenario: 驗證失敗不應產生紀錄。"""
        with pytest.raises(ValidationError):
            await gateway.create(_make_payload(title=''))

        assert await gateway.list_events() == []


# =============================================================================
# Rule: 建立與讀取
# =============================================================================


@allure.feature('Event CRUD')
@allure.story('建立 Event 後可讀取完整內容')
class TestCreateAndGet:
    """測試建立與讀取。"""

    @allure.title('建立不含分類的 Event')
    async def test_create_without_category(self, gateway: EventGateway) -> None:
        """Scenario: 建立不含分類的 Event

        Given 完整的必填欄位
        When 建立 Event
        Then 應回傳 success 與新 id
        And 讀取該 id 應得到送出的內容與空分類列表
        """
        result = await gateway.create(_make_payload())

        assert result['success'] is True
        view = await gateway.get(result['id'])
        assert view == {
            'id': result['id'],
            'title': 'PyCon Taiwan',
            'description': '年度 Python 研討會',
            'event_start_time': '2024-05-10 09:00',
            'event_end_time': '2024-05-10 18:00',
            'category': [],
        }

    @allure.title('每次建立都回傳新的 id')
    async def test_create_returns_fresh_ids(self, gateway: EventGateway) -> None:
        """Scenario: 重複建立相同內容會產生不同 id（非冪等）。"""
        first = await gateway.create(_make_payload())
        second = await gateway.create(_make_payload())

        assert first['id'] != second['id']
        assert len(await gateway.list_events()) == 2

    @allure.title('刪除後的 id 不會被重新使用')
    async def test_ids_not_reused_after_delete(self, gateway: EventGateway) -> None:
        """Scenario: 刪除最新的 Event 後再建立，id 不重複。"""
        first = await gateway.create(_make_payload())
        await gateway.delete({'id': first['id']})

        second = await gateway.create(_make_payload())

        assert second['id'] != first['id']

    @allure.title('建立時指派分類，不存在的分類自動建立')
    async def test_create_with_category(self, gateway: EventGateway, store: RecordStore) -> None:
        """Scenario: 建立含分類的 Event。"""
        result = await gateway.create(_make_payload(category='Conference'))

        view = await gateway.get(result['id'])
        assert view['category'] == ['Conference']
        terms = await store.list_terms('em_event_category')
        assert [t['name'] for t in terms] == ['Conference']

    @allure.title('分類為 "0" 時不指派')
    async def test_create_with_zero_category(self, gateway: EventGateway) -> None:
        """Scenario: category 為 "0" 視為空值。"""
        result = await gateway.create(_make_payload(category='0'))

        view = await gateway.get(result['id'])
        assert view['category'] == []

    @allure.title('分類可為列表')
    async def test_create_with_category_list(self, gateway: EventGateway) -> None:
        """Scenario: category 為字串列表。"""
        result = await gateway.create(_make_payload(category=['Conference', 'Python', 'Conference']))

        view = await gateway.get(result['id'])
        assert view['category'] == ['Conference', 'Python']

    @allure.title('輸入會被清理')
    async def test_create_sanitizes_input(self, gateway: EventGateway) -> None:
        """Scenario: 標題移除 HTML 與多餘空白，描述保留換行。"""
        result = await gateway.create(
            _make_payload(
                title='  <b>PyCon</b>   Taiwan ',
                description='第一行  \n<script>x</script>第二行',
            )
        )

        view = await gateway.get(result['id'])
        assert view['title'] == 'PyCon Taiwan'
        assert view['description'] == '第一行\nx第二行'

    @allure.title('讀取字串形式的 id')
    async def test_get_accepts_string_id(self, gateway: EventGateway) -> None:
        """Scenario: query 參數傳入字串 id。"""
        result = await gateway.create(_make_payload())

        view = await gateway.get(str(result['id']))

        assert view['id'] == result['id']

    @allure.title('讀取不存在或無效的 id')
    @pytest.mark.parametrize('event_id', [None, '', 'abc', 0, 9999, '99999999999999999999', 2**63])
    async def test_get_unknown_id(self, gateway: EventGateway, event_id: Any) -> None:
        """Scenario: 讀取不存在的 Event 應拋出 NotFoundError。"""
        with pytest.raises(NotFoundError) as exc_info:
            await gateway.get(event_id)

        assert exc_info.value.code == 'not_found'
        assert exc_info.value.message == 'Event not found'
        assert exc_info.value.status == 404

    @allure.title('儲存層失敗時拋出 StoreError')
    async def test_create_store_failure(self) -> None:
        """Scenario: 紀錄類型未註冊時寫入失敗。"""
        gateway = EventGateway(MemoryRecordStore())

        with pytest.raises(StoreError) as exc_info:
            await gateway.create(_make_payload())

        assert exc_info.value.status == 500


# =============================================================================
# Rule: 更新只套用存在且非空的欄位
# =============================================================================


@allure.feature('Event CRUD')
@allure.story('更新只套用存在且非空的欄位')
class TestUpdate:
    """測試部分更新。"""

    @allure.title('只更新標題')
    async def test_update_title_only(self, gateway: EventGateway) -> None:
        """Scenario: 只更新標題

        Given 一個已建立的 Event
        When 以 {title: "new"} 更新
        Then 標題應變更，其餘欄位不變
        """
        created = await gateway.create(_make_payload())

        result = await gateway.update({'id': created['id'], 'title': 'new'})

        assert result == {'success': True}
        view = await gateway.get(created['id'])
        assert view['title'] == 'new'
        assert view['description'] == '年度 Python 研討會'
        assert view['event_start_time'] == '2024-05-10 09:00'
        assert view['event_end_time'] == '2024-05-10 18:00'

    @allure.title('空字串欄位不會清除既有值')
    @pytest.mark.parametrize('value', ['', '0'])
    @pytest.mark.parametrize(
        'field', ['title', 'description', 'event_start_time', 'event_end_time', 'category']
    )
    async def test_empty_value_leaves_field(
        self,
        gateway: EventGateway,
        field: str,
        value: str,
    ) -> None:
        """Scenario: 以空字串或 "0" 更新欄位，既有值保持不變。"""
        created = await gateway.create(_make_payload(category='Conference'))
        before = await gateway.get(created['id'])

        await gateway.update({'id': created['id'], field: value})

        assert await gateway.get(created['id']) == before

    @allure.title('更新時間欄位')
    async def test_update_times(self, gateway: EventGateway) -> None:
        """Scenario: 更新開始與結束時間。"""
        created = await gateway.create(_make_payload())

        await gateway.update(
            {
                'id': created['id'],
                'event_start_time': '2024-06-01 10:00',
                'event_end_time': '2024-06-01 12:00',
            }
        )

        view = await gateway.get(created['id'])
        assert view['event_start_time'] == '2024-06-01 10:00'
        assert view['event_end_time'] == '2024-06-01 12:00'
        assert view['title'] == 'PyCon Taiwan'

    @allure.title('分類指派會被取代')
    async def test_update_category_replaces(self, gateway: EventGateway) -> None:
        """Scenario: 更新分類時取代原有分類，而非累加。"""
        created = await gateway.create(_make_payload(category='Conference'))

        await gateway.update({'id': created['id'], 'category': 'Meetup'})

        view = await gateway.get(created['id'])
        assert view['category'] == ['Meetup']

    @allure.title('空分類不會清除既有分類')
    async def test_update_empty_category_keeps(self, gateway: EventGateway) -> None:
        """Scenario: category 為空值時保留原分類。"""
        created = await gateway.create(_make_payload(category='Conference'))

        await gateway.update({'id': created['id'], 'category': ''})

        view = await gateway.get(created['id'])
        assert view['category'] == ['Conference']

    @allure.title('更新未帶 id')
    @pytest.mark.parametrize('payload', [{}, {'id': ''}, {'id': None}, {'title': 'x'}])
    async def test_update_missing_id(self, gateway: EventGateway, payload: dict[str, Any]) -> None:
        """Scenario: 未帶 id 應拋出 MissingIdError。"""
        with pytest.raises(MissingIdError) as exc_info:
            await gateway.update(payload)

        assert exc_info.value.code == 'missing_id'
        assert exc_info.value.status == 400

    @allure.title('更新不存在的 id')
    @pytest.mark.parametrize(
        'event_id', [9999, 'abc', '-1', '12abc', '1.0', True, '99999999999999999999']
    )
    async def test_update_unknown_id(self, gateway: EventGateway, event_id: Any) -> None:
        """Scenario: id 無法對應到 Event 應拋出 invalid_id。"""
        with pytest.raises(NotFoundError) as exc_info:
            await gateway.update({'id': event_id, 'title': 'x'})

        assert exc_info.value.code == 'invalid_id'
        assert exc_info.value.message == 'Invalid Event ID'

    @allure.title('更新失敗時整體回復')
    async def test_update_is_atomic(self, gateway: EventGateway, store: RecordStore) -> None:
        """Scenario: 分類寫入失敗時，標題與時間的變更一併回復。"""
        created = await gateway.create(_make_payload())
        before = await gateway.get(created['id'])

        # 指向未註冊的分類法，使 set_terms 在標題與 metadata 寫入後失敗
        gateway._config.taxonomy = 'unregistered'
        with pytest.raises(StoreError):
            await gateway.update(
                {
                    'id': created['id'],
                    'title': 'changed',
                    'event_start_time': '2030-01-01',
                    'category': 'Boom',
                }
            )
        gateway._config.taxonomy = 'em_event_category'

        assert await gateway.get(created['id']) == before


# =============================================================================
# Rule: 刪除為永久刪除
# =============================================================================


@allure.feature('Event CRUD')
@allure.story('刪除為永久刪除')
class TestDelete:
    """測試刪除。"""

    @allure.title('刪除後讀取應找不到')
    async def test_delete_then_get(self, gateway: EventGateway, store: RecordStore) -> None:
        """Scenario: 刪除後讀取

        Given 一個已建立的 Event
        When 刪除該 Event
        Then 讀取應拋出 NotFoundError
        And 儲存層不應留下紀錄或 metadata
        """
        created = await gateway.create(_make_payload(category='Conference'))

        result = await gateway.delete({'id': created['id']})

        assert result == {'success': True}
        with pytest.raises(NotFoundError):
            await gateway.get(created['id'])
        assert await store.get_record(created['id']) is None
        assert await store.get_meta(created['id'], 'event_start_time') == ''
        assert await store.get_terms(created['id'], 'em_event_category') == []

    @allure.title('刪除未帶 id')
    async def test_delete_missing_id(self, gateway: EventGateway) -> None:
        """Scenario: 未帶 id 應拋出 MissingIdError。"""
        with pytest.raises(MissingIdError):
            await gateway.delete({})

    @allure.title('重複刪除')
    async def test_delete_twice(self, gateway: EventGateway) -> None:
        """Scenario: 第二次刪除同一 id 應拋出 invalid_id。"""
        created = await gateway.create(_make_payload())
        await gateway.delete({'id': created['id']})

        with pytest.raises(NotFoundError) as exc_info:
            await gateway.delete({'id': created['id']})

        assert exc_info.value.code == 'invalid_id'


# =============================================================================
# Rule: 列表支援 event_start_time 子字串篩選
# =============================================================================


@allure.feature('Event CRUD')
@allure.story('列表支援 event_start_time 子字串篩選')
class TestList:
    """測試列表與日期篩選。"""

    async def _seed(self, gateway: EventGateway) -> list[int]:
        ids: list[int] = []
        for start in ('2024-05-01 10:00', '2024-06-15 10:00', '2024-05-31 20:00'):
            result = await gateway.create(_make_payload(event_start_time=start, title=start))
            ids.append(result['id'])
        return ids

    @allure.title('不帶篩選時回傳全部')
    async def test_list_all(self, gateway: EventGateway) -> None:
        """Scenario: 不帶篩選時回傳全部 Event，依建立順序。"""
        ids = await self._seed(gateway)

        views = await gateway.list_events()

        assert [v['id'] for v in views] == ids

    @allure.title('以子字串篩選開始時間')
    async def test_list_filter_by_month(self, gateway: EventGateway) -> None:
        """Scenario: list(date="2024-05") 只回傳開始時間包含該子字串的 Event。"""
        ids = await self._seed(gateway)

        views = await gateway.list_events('2024-05')

        assert [v['id'] for v in views] == [ids[0], ids[2]]
        assert all('2024-05' in v['event_start_time'] for v in views)

    @allure.title('子字串不限於前綴')
    async def test_list_filter_matches_anywhere(self, gateway: EventGateway) -> None:
        """Scenario: 篩選為子字串比對，非日期比較。"""
        await self._seed(gateway)

        views = await gateway.list_events('20:00')

        assert [v['event_start_time'] for v in views] == ['2024-05-31 20:00']

    @allure.title('空白篩選等同不篩選')
    async def test_list_blank_filter(self, gateway: EventGateway) -> None:
        """Scenario: date 為空白時回傳全部。"""
        await self._seed(gateway)

        assert len(await gateway.list_events('   ')) == 3

    @allure.title('篩選不把 % 視為萬用字元')
    async def test_list_filter_literal_percent(self, gateway: EventGateway) -> None:
        """Scenario: date 含 % 時以字面比對。"""
        await self._seed(gateway)

        assert await gateway.list_events('%') == []


# =============================================================================
# Rule: 非 Event 紀錄的 id 應視為不存在
# =============================================================================


@allure.feature('Event CRUD')
@allure.story('非 Event 紀錄的 id 應視為不存在')
class TestForeignRecords:
    """測試其他類型紀錄不會被當成 Event。"""

    @pytest.fixture
    async def page_id(self, store: RecordStore) -> int:
        """建立一筆非 Event 類型的紀錄。"""
        record_id = await store.create_record('page', title='About', content='...')
        await store.set_meta(record_id, 'event_start_time', '2024-05-01')
        return record_id

    @allure.title('讀取非 Event 紀錄')
    async def test_get_foreign(self, gateway: EventGateway, page_id: int) -> None:
        """Scenario: get 非 Event 紀錄應拋出 not_found。"""
        with pytest.raises(NotFoundError) as exc_info:
            await gateway.get(page_id)

        assert exc_info.value.code == 'not_found'

    @allure.title('更新與刪除非 Event 紀錄')
    async def test_update_delete_foreign(
        self,
        gateway: EventGateway,
        store: RecordStore,
        page_id: int,
    ) -> None:
        """Scenario: update / delete 非 Event 紀錄應拋出 invalid_id，且不修改該紀錄。"""
        with pytest.raises(NotFoundError) as update_exc:
            await gateway.update({'id': page_id, 'title': 'hijack'})
        with pytest.raises(NotFoundError) as delete_exc:
            await gateway.delete({'id': page_id})

        assert update_exc.value.code == 'invalid_id'
        assert delete_exc.value.code == 'invalid_id'
        record = await store.get_record(page_id)
        assert record is not None
        assert record['title'] == 'About'

    @allure.title('列表不包含非 Event 紀錄')
    async def test_list_excludes_foreign(self, gateway: EventGateway, page_id: int) -> None:
        """Scenario: list 只回傳 Event 類型。"""
        created = await gateway.create(_make_payload())

        views = await gateway.list_events('2024-05')

        assert [v['id'] for v in views] == [created['id']]

    @allure.title('trash 中的 Event 視為不存在')
    async def test_trashed_event(self, gateway: EventGateway, store: RecordStore) -> None:
        """Scenario: 被非強制刪除移入 trash 的 Event 不可讀取也不出現在列表。"""
        created = await gateway.create(_make_payload())
        await store.delete_record(created['id'])

        with pytest.raises(NotFoundError):
            await gateway.get(created['id'])
        assert await gateway.list_events() == []

    @allure.title('超出 64 位元範圍的 id')
    @pytest.mark.parametrize('event_id', ['99999999999999999999', 2**63, -(2**63) - 1])
    async def test_out_of_range_id(self, gateway: EventGateway, event_id: Any) -> None:
        """Scenario: 儲存層無法表示的 id 視為不存在，而非儲存層錯誤。"""
        with pytest.raises(NotFoundError) as get_exc:
            await gateway.get(event_id)
        with pytest.raises(NotFoundError) as update_exc:
            await gateway.update({'id': event_id, 'title': 'x'})
        with pytest.raises(NotFoundError) as delete_exc:
            await gateway.delete({'id': event_id})

        assert get_exc.value.code == 'not_found'
        assert update_exc.value.code == 'invalid_id'
        assert delete_exc.value.code == 'invalid_id'
