"""
Test suite for the Reporting Engine module
"""

import pytest
import json
from decimal import Decimal
from datetime import date

from data_bank.config import DataBankConfig
from data_bank.models import Region, CustomerNode, CustomerTransaction
from data_bank.storage import InMemoryDataset, SQLiteDataset
from data_bank.reporting import (
    ReportingEngine, ReportType, ReportFormat, ReportDefinition, ReportResult
)


def txn(customer_id, day, txn_type, amount):
    return CustomerTransaction(customer_id, day, txn_type, Decimal(str(amount)))


@pytest.fixture
def config():
    return DataBankConfig()


@pytest.fixture
def regions():
    return [Region(1, "Australia"), Region(2, "America"), Region(3, "Africa")]


@pytest.fixture
def customer_nodes():
    return [
        CustomerNode(1, 1, 1, date(2020, 1, 1), date(2020, 1, 11)),
        CustomerNode(2, 1, 2, date(2020, 1, 1), date(2020, 1, 21)),
        CustomerNode(1, 1, 2, date(2020, 1, 12), date(2020, 2, 11)),
        # Node 1 also serves America
        CustomerNode(3, 2, 1, date(2020, 1, 1), date(2020, 1, 6)),
        # Region 7 is unknown: counted in totals, dropped by the region join
        CustomerNode(4, 7, 5, date(2020, 1, 1), date(2020, 1, 3)),
    ]


@pytest.fixture
def transactions():
    return [
        txn(1, date(2021, 1, 5), "deposit", 100),
        txn(1, date(2021, 1, 20), "withdrawal", 30),
        txn(1, date(2021, 2, 2), "deposit", 50),
        txn(2, date(2021, 1, 7), "deposit", 30),
        txn(3, date(2021, 1, 9), "purchase", 25),
    ]


@pytest.fixture
def dataset(regions, customer_nodes, transactions):
    return InMemoryDataset(regions, customer_nodes, transactions)


@pytest.fixture
def engine(dataset, config):
    return ReportingEngine(dataset, config)


def engine_for(transactions=(), nodes=(), regions=(), **config_values):
    return ReportingEngine(
        InMemoryDataset(regions, nodes, transactions),
        DataBankConfig(**config_values)
    )


class TestNodeExploration:
    """Customer node exploration reports"""
    
    def test_unique_node_count(self, engine):
        assert engine.unique_node_count() == 3
    
    def test_unique_node_count_ignores_duplicate_rows(self, customer_nodes):
        doubled = engine_for(nodes=customer_nodes + customer_nodes)
        assert doubled.unique_node_count() == 3
    
    def test_nodes_per_region_counts_shared_node_in_each_region(self, engine):
        result = engine.nodes_per_region()
        
        assert result.data == [
            {'region_name': 'America', 'node_count': 1},
            {'region_name': 'Australia', 'node_count': 2},
        ]
        # Node 1 is counted once in each region it serves
        assert sum(row['node_count'] for row in result.data) == 3
        assert engine.unique_node_count() == 3
        assert result.metadata['row_count'] == 2
    
    def test_customers_per_region(self, engine):
        result = engine.customers_per_region()
        
        assert result.data == [
            {'region_name': 'America', 'customer_count': 1},
            {'region_name': 'Australia', 'customer_count': 2},
        ]
    
    def test_avg_reallocation_days(self):
        nodes = [
            CustomerNode(1, 1, 1, date(2020, 1, 1), date(2020, 1, 11)),
            CustomerNode(2, 1, 1, date(2020, 1, 1), date(2020, 1, 21)),
        ]
        assert engine_for(nodes=nodes).avg_reallocation_days() == 15.0
    
    def test_avg_reallocation_days_empty(self):
        assert engine_for().avg_reallocation_days() is None
    
    def test_reallocation_percentiles(self, engine):
        result = engine.reallocation_percentiles()
        australia = result.data[1]
        
        # Australia allocations last 10, 20 and 30 days
        assert australia['region_name'] == 'Australia'
        assert australia['median'] == 20.0
        assert australia['p80'] == pytest.approx(26.0)
        assert australia['p95'] == pytest.approx(29.0)
        assert result.data[0] == {'region_name': 'America', 'median': 5.0, 'p80': 5.0, 'p95': 5.0}
        assert result.metadata['method'] == 'linear_interpolation'
    
    def test_empty_region_reports(self):
        empty = engine_for()
        assert empty.unique_node_count() == 0
        assert empty.nodes_per_region().data == []
        assert empty.reallocation_percentiles().data == []


class TestTransactionReports:
    """Customer transaction reports"""
    
    def test_transaction_type_summary(self, engine):
        result = engine.transaction_type_summary()
        
        assert result.data == [
            {'txn_type': 'deposit', 'count': 3, 'total_amount': Decimal('180.00')},
            {'txn_type': 'purchase', 'count': 1, 'total_amount': Decimal('25.00')},
            {'txn_type': 'withdrawal', 'count': 1, 'total_amount': Decimal('30.00')},
        ]
        assert result.metadata['row_limit'] == 1000
        assert result.metadata['truncated'] is False
    
    def test_avg_deposit_behavior_excludes_non_depositors(self, engine):
        # Customer 1 deposited twice (150), customer 2 once (30), customer 3 never
        avg_count, avg_amount = engine.avg_deposit_behavior()
        
        assert avg_count == 1.5
        assert avg_amount == 90.0
    
    def test_avg_deposit_behavior_without_deposits(self):
        only_purchases = engine_for([txn(1, date(2021, 1, 1), "purchase", 10)])
        assert only_purchases.avg_deposit_behavior() == (None, None)
    
    def test_closing_balance_by_month(self, engine):
        result = engine.closing_balance_by_month()
        customer_one = [row for row in result.data if row['customer_id'] == 1]
        
        assert customer_one == [
            {'customer_id': 1, 'end_of_month': date(2021, 1, 31), 'closing_balance': Decimal('70')},
            {'customer_id': 1, 'end_of_month': date(2021, 2, 28), 'closing_balance': Decimal('50')},
        ]
    
    def test_closing_balance_is_repeatable(self, engine):
        assert engine.closing_balance_by_month().data == engine.closing_balance_by_month().data
    
    def test_closing_balance_row_limit(self, transactions):
        limited = engine_for(transactions, row_limit=2)
        result = limited.closing_balance_by_month()
        
        assert len(result.data) == 2
        assert result.metadata['truncated'] is True
        assert result.metadata['row_limit'] == 2


class TestActiveCustomersPerMonth:
    """
    Months qualify on month-level counts: more than one distinct depositor
    and at least one distinct purchaser or withdrawer. The same customer
    does not have to satisfy both.
    """
    
    @pytest.fixture
    def activity(self):
        return [
            # January: two depositors, a different customer purchases -> qualifies
            txn(1, date(2021, 1, 3), "deposit", 10),
            txn(2, date(2021, 1, 4), "deposit", 10),
            txn(3, date(2021, 1, 5), "purchase", 10),
            # February: one customer deposits twice -> only one distinct depositor
            txn(1, date(2021, 2, 3), "deposit", 10),
            txn(1, date(2021, 2, 4), "deposit", 10),
            txn(2, date(2021, 2, 5), "withdrawal", 10),
            # March: depositors but no purchases or withdrawals
            txn(1, date(2021, 3, 3), "deposit", 10),
            txn(2, date(2021, 3, 4), "deposit", 10),
            # April: qualifies; the unknown type is not counted
            txn(1, date(2021, 4, 3), "deposit", 10),
            txn(1, date(2021, 4, 9), "purchase", 10),
            txn(2, date(2021, 4, 4), "deposit", 10),
            txn(9, date(2021, 4, 5), "transfer", 10),
            # January next year is a separate month
            txn(4, date(2022, 1, 2), "deposit", 10),
        ]
    
    def test_qualifying_months(self, activity):
        result = engine_for(activity).active_customers_per_month()
        
        assert result.data == [
            {'year': 2021, 'month': 1, 'customer_count': 3},
            {'year': 2021, 'month': 4, 'customer_count': 2},
        ]
    
    def test_depositors_and_spenders_may_differ(self):
        # No customer both deposited and spent, the month still qualifies
        activity = [
            txn(1, date(2021, 5, 1), "deposit", 10),
            txn(2, date(2021, 5, 1), "deposit", 10),
            txn(3, date(2021, 5, 1), "withdrawal", 10),
        ]
        result = engine_for(activity).active_customers_per_month()
        
        assert result.data == [{'year': 2021, 'month': 5, 'customer_count': 3}]


class TestBalanceIncrease:
    """Percentage of customers whose closing balance grew by more than 5%"""
    
    @pytest.fixture
    def growth(self):
        return [
            # Customer 1: 100 -> 200, ratio 1.0
            txn(1, date(2021, 1, 5), "deposit", 100),
            txn(1, date(2021, 2, 5), "deposit", 200),
            # Customer 2: 100 -> 102, ratio 0.02
            txn(2, date(2021, 1, 5), "deposit", 100),
            txn(2, date(2021, 2, 5), "deposit", 102),
            # Customer 3: flat
            txn(3, date(2021, 1, 5), "deposit", 100),
            txn(3, date(2021, 2, 5), "deposit", 100),
            # Customer 4: a single month
            txn(4, date(2021, 1, 5), "deposit", 50),
        ]
    
    def test_one_in_four(self, growth):
        assert engine_for(growth).pct_customers_balance_increase_over_5pct() == 25.0
    
    def test_zero_or_negative_minimum_is_excluded(self, growth):
        growth += [
            # Customer 5: minimum is exactly zero
            txn(5, date(2021, 1, 5), "fee", 10),
            txn(5, date(2021, 2, 5), "deposit", 100),
            # Customer 6: minimum is negative
            txn(6, date(2021, 1, 5), "purchase", 40),
            txn(6, date(2021, 2, 5), "deposit", 100),
        ]
        
        assert engine_for(growth).pct_customers_balance_increase_over_5pct() == 25.0
    
    def test_threshold_is_configurable(self, growth):
        lenient = engine_for(growth, balance_increase_threshold=Decimal('0.01'))
        assert lenient.pct_customers_balance_increase_over_5pct() == 50.0
    
    def test_no_ratios(self):
        assert engine_for().pct_customers_balance_increase_over_5pct() is None


class TestAllocationOptions:
    """The three data allocation options"""
    
    def test_real_time_balance(self, engine):
        result = engine.real_time_balance()
        customer_one = [row['real_time_balance'] for row in result.data if row['customer_id'] == 1]
        
        assert customer_one == [Decimal('100'), Decimal('70'), Decimal('120')]
    
    def test_prior_month_end_balance(self):
        activity = [
            txn(1, date(2021, 1, 5), "deposit", 100),
            txn(1, date(2021, 1, 31), "withdrawal", 60),
        ]
        result = engine_for(activity).prior_month_end_balance()
        
        assert result.data == [
            {'customer_id': 1, 'end_of_month': date(2021, 1, 31), 'closing_balance': Decimal('100')}
        ]
    
    def test_trailing_average_balance_uses_configured_window(self):
        activity = [
            txn(1, date(2021, 1, 1), "deposit", 10),
            txn(1, date(2021, 1, 2), "deposit", 30),
            txn(1, date(2021, 1, 3), "deposit", 50),
        ]
        result = engine_for(activity, trailing_window_size=2).trailing_average_balance()
        
        assert [row['average_balance'] for row in result.data] == [
            Decimal('10.00'), Decimal('20.00'), Decimal('40.00')
        ]
        assert result.metadata['window_size'] == 2
    
    def test_interest_projection(self, engine):
        result = engine.interest_projection({1: 1000, 2: Decimal('200')})
        
        assert result.data[0]['simple_interest_monthly_growth'] == Decimal('1005')
        assert result.data[1]['simple_interest_monthly_growth'] == Decimal('201')
        assert result.metadata['annual_rate'] == '0.06'
        assert 'days_per_year' not in result.metadata
    
    def test_interest_projection_daily_growth(self):
        result = engine_for(days_per_year=360).interest_projection({1: 1000}, days=360)
        
        assert result.data[0]['simple_interest_daily_growth'] == Decimal('1060')
        assert result.metadata['days'] == 360
        assert result.metadata['days_per_year'] == 360
    
    def test_interest_projection_keeps_fractional_allocation(self, engine):
        result = engine.interest_projection({1: Decimal('0.125')})
        assert result.data[0]['simple_interest_monthly_growth'] == Decimal('0.125625')


class TestReportRegistry:
    """Report dispatch, listing and export"""
    
    def test_list_report_definitions(self, engine):
        definitions = engine.list_report_definitions()
        
        assert len(definitions) == len(ReportType)
        assert all(isinstance(d, ReportDefinition) for d in definitions)
        assert {d.id for d in definitions} == {t.value for t in ReportType}
    
    def test_run_scalar_report(self, engine):
        result = engine.run_report("unique_nodes")
        
        assert isinstance(result, ReportResult)
        assert result.totals == {'unique_nodes': 3}
        assert result.data == [{'unique_nodes': 3}]
    
    def test_run_deposit_behavior_report(self, engine):
        result = engine.run_report(ReportType.AVG_DEPOSIT_BEHAVIOR.value)
        assert result.totals == {'avg_deposit_count': 1.5, 'avg_deposit_amount': 90.0}
    
    def test_run_row_report(self, engine):
        result = engine.run_report("nodes_per_region")
        assert result.data == engine.nodes_per_region().data
    
    def test_unknown_report(self, engine):
        with pytest.raises(ValueError, match="not found"):
            engine.run_report("loan_portfolio")
    
    def test_interest_projection_requires_allocations(self, engine):
        with pytest.raises(ValueError, match="allocations"):
            engine.run_report("interest_projection")
    
    def test_interest_projection_passes_days(self, engine):
        result = engine.run_report("interest_projection", allocations={1: 1000}, days=365)
        assert result.data[0]['simple_interest_daily_growth'] == Decimal('1060')
    
    def test_run_all(self, engine):
        results = engine.run_all()
        
        assert "interest_projection" not in results
        assert len(results) == len(ReportType) - 1
        assert results["avg_reallocation_days"].totals['avg_reallocation_days'] == 13.4
        
        with_interest = engine.run_all(allocations={1: 1000})
        assert with_interest["interest_projection"].data[0]['customer_id'] == 1
    
    def test_run_all_on_empty_dataset(self):
        results = engine_for().run_all()
        
        assert results["avg_reallocation_days"].totals == {'avg_reallocation_days': None}
        assert results["closing_balance_by_month"].data == []
        assert results["pct_customers_balance_increase_over_5pct"].data == [
            {'percentage_increase_above_5': None}
        ]
    
    def test_export_dict(self, engine):
        exported = engine.export_report(engine.run_report("unique_nodes"), ReportFormat.DICT)
        
        assert exported['report_id'] == "unique_nodes"
        assert exported['totals'] == {'unique_nodes': 3}
        assert isinstance(exported['generated_at'], str)
    
    def test_export_json(self, engine):
        exported = engine.export_report(engine.closing_balance_by_month(), ReportFormat.JSON)
        parsed = json.loads(exported)
        
        assert parsed['data'][0] == {
            'customer_id': 1, 'end_of_month': '2021-01-31', 'closing_balance': '70.00'
        }
    
    def test_export_csv(self, engine):
        exported = engine.export_report(engine.closing_balance_by_month(), ReportFormat.CSV)
        lines = exported.splitlines()
        
        assert lines[0] == "customer_id,end_of_month,closing_balance"
        assert lines[1] == "1,2021-01-31,70.00"
    
    def test_export_csv_empty(self):
        empty = engine_for()
        assert empty.export_report(empty.closing_balance_by_month(), ReportFormat.CSV) == ""
    
    def test_unsupported_format(self, engine):
        with pytest.raises(ValueError, match="Unsupported export format"):
            engine.export_report(engine.nodes_per_region(), "xml")


class TestSQLiteBackedReports:
    """Reports read the same way from a SQLite dataset"""
    
    def test_reports_match_in_memory(self, regions, customer_nodes, transactions, config):
        dataset = SQLiteDataset()
        dataset.add_regions(regions)
        dataset.add_customer_nodes(customer_nodes)
        dataset.add_transactions(transactions)
        
        try:
            sqlite_engine = ReportingEngine(dataset, config)
            memory_engine = ReportingEngine(InMemoryDataset(regions, customer_nodes, transactions), config)
            
            assert sqlite_engine.unique_node_count() == memory_engine.unique_node_count()
            assert sqlite_engine.real_time_balance().data == memory_engine.real_time_balance().data
            assert sqlite_engine.reallocation_percentiles().data == memory_engine.reallocation_percentiles().data
        finally:
            dataset.close()
